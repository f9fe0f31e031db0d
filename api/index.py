"""
Vercel entry point for ReplyDesk API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Mangum
from replydesk.main import app

# Lambda handler for ASGI app; lifespan builds the service graph per cold start
handler = Mangum(app, lifespan="auto")
