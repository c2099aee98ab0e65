"""
Backend Scripts Module

Available scripts:
    - seed_data.py: Creates demo users and sample workflow templates

Usage:
    python -m scripts.seed_data
"""
