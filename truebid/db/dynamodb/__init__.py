"""DynamoDB access for the remote proposal store.

This package centralizes:
- boto3 resource configuration
- retry/backoff policy
- typed errors mapped from botocore failures
"""
