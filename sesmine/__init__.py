"""SESMine Platform access-control layer"""

__version__ = "2.0.0"
