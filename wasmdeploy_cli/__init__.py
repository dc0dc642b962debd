"""
Command-line interface for the wasmdeploy SDK.
"""
