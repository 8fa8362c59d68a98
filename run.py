import logging
import os

from panelops import create_app

logger = logging.getLogger(__name__)


def check_environment():
    """Warn about settings that fall back to development defaults"""
    missing_vars = [var for var in ('DATABASE_URL', 'JWT_SECRET_KEY') if not os.getenv(var)]
    for var in missing_vars:
        logger.warning("%s is not set, using the development default", var)
    return not missing_vars


if __name__ == '__main__':
    app = create_app()
    check_environment()
    port = int(os.getenv('PORT', 5021))
    logger.info("panelops API available at http://localhost:%d/api", port)
    app.run(host='0.0.0.0', port=port, debug=os.getenv('FLASK_DEBUG') == '1')
