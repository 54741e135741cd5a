#!/usr/bin/env python3
"""
Rehab Companion Application Entry Point
Uses application factory pattern for better modularity and testing
"""

import os
import sys
import argparse
import logging
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from app_factory import create_app
from utils.seed import seed_reference_data

logger = logging.getLogger(__name__)


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Run the Rehab Companion backend'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=5000,
        help='Port to run the app on (default: 5000)'
    )
    parser.add_argument(
        '--host',
        type=str,
        default='0.0.0.0',
        help='Host to bind to (default: 0.0.0.0)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default='default',
        choices=['default', 'production', 'development'],
        help='Configuration environment (default: default)'
    )
    parser.add_argument(
        '--seed',
        action='store_true',
        help='Insert default doctors and feed posts before starting'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode'
    )

    return parser.parse_args()


def validate_environment():
    """Validate required environment variables and setup"""
    required_env_vars = ['GROQ_API_KEY']
    missing_vars = [var for var in required_env_vars if not os.environ.get(var)]

    if missing_vars:
        logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
        logger.error("Please check your .env file or environment setup")
        return False

    # Log API key status (without revealing the key)
    api_key = os.environ.get('GROQ_API_KEY')
    logger.info(f'GROQ_API_KEY found - length: {len(api_key)}')

    return True


def main():
    """Main application entry point"""
    try:
        args = parse_arguments()

        config_name = 'development' if args.debug else args.config
        app = create_app(config_name)

        # Without a key every chat reply is the fallback checklist
        if not validate_environment():
            logger.warning('Starting without GROQ_API_KEY; chat replies will use the fallback text')

        if args.seed:
            seed_reference_data()

        port = int(os.environ.get('PORT', args.port))

        logger.info(f'Starting Rehab Companion on {args.host}:{port}')
        logger.info(f'Configuration: {config_name}')
        logger.info(f'Debug mode: {app.config.get("DEBUG", False)}')

        logger.debug("Registered URL Rules:")
        for rule in app.url_map.iter_rules():
            logger.debug(f"Route: {rule}, Endpoint: {rule.endpoint}")

        app.run(
            host=args.host,
            port=port,
            debug=app.config.get('DEBUG', False),
            threaded=True
        )

    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
