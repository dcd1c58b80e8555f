import os
import sys

# Add common_lib to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'common_lib'))

import router


def lambda_handler(event, context):
    """Single entry point for every public and moderation route"""
    return router.lambda_handler(event, context)
