"""Logging and error types shared across the package"""
