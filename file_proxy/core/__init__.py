"""
Core mapping logic for the file proxy.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. The whole REST-to-storage translation
can be tested without a web server or a bucket.
"""
