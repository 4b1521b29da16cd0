"""
Flask extension that wires the Product Interest module into a host app.
"""

import logging
import os

from .core import Config, Database, LoggingService
from .modules.subscriptions import product_interest_bp
from .modules.subscriptions.hooks import HookRegistry
from .modules.subscriptions.transients import flush_transients

logger = logging.getLogger(__name__)

# Settings copied onto app.config unless the host app already set them
CONFIG_DEFAULTS = [
    'MENU_SLUG', 'PROD_META_KEY', 'ADMIN_LOGIN_URL', 'DATE_FORMAT', 'TRANSIENT_TTL',
    'PRODUCT_VIEW_URL', 'PRODUCT_EDIT_URL', 'CUSTOMER_VIEW_URL', 'CUSTOMER_ORDERS_URL',
]


class ProductInterest:
    """
    Usage:
        app = Flask(__name__)
        product_interest = ProductInterest(app)

        @product_interest.hooks.filter('table_data_item')
        def add_note(row):
            row['note'] = '...'
            return row
    """

    def __init__(self, app=None, config=None):
        self.app = None
        self.hooks = HookRegistry()
        self._config = config or {}
        self._registered_modules = []

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app

        for key, value in self._config.get('settings', {}).items():
            app.config[key] = value

        for key in CONFIG_DEFAULTS:
            app.config.setdefault(key, getattr(Config, key))

        if not app.config.get('PRODUCT_INTEREST_DB'):
            if app.config.get('DB_DIR'):
                app.config['PRODUCT_INTEREST_DB'] = os.path.join(app.config['DB_DIR'], 'product_interest.db')
            else:
                app.config['PRODUCT_INTEREST_DB'] = Config.PRODUCT_INTEREST_DB

        if not app.config.get('SECRET_KEY') and Config.SECRET_KEY:
            app.config['SECRET_KEY'] = Config.SECRET_KEY

        app.extensions['product_interest'] = self

        with app.app_context():
            self._setup_database()

        app.register_blueprint(product_interest_bp)
        self._registered_modules.append('subscriptions')

        @app.context_processor
        def inject_product_interest():
            return {'product_interest_menu_slug': app.config['MENU_SLUG']}

    def _setup_database(self):
        try:
            db_path = Database.init_schema()
            logger.info(f"Product interest database ready at {db_path}")
        except Exception as e:
            logger.error(f"Error initializing product interest database: {e}")
            raise

    def get_registered_modules(self):
        return list(self._registered_modules)

    def deactivate(self):
        """Run deactivation callbacks and drop every cached lookup"""
        with self.app.app_context():
            self.hooks.do_action('deactivate_process')
            removed = flush_transients()
            LoggingService.info('system', 'Product interest deactivated', {'transients_removed': removed})
        return removed
