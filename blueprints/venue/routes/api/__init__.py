"""
Venue API routes package.
Split into smaller modules by entity for maintainability.
"""

from flask import Blueprint

# Create the API blueprint
api_bp = Blueprint('api', __name__)

# Import and register routes from submodules
from blueprints.venue.routes.api import reservations
from blueprints.venue.routes.api import payments
from blueprints.venue.routes.api import holidays
from blueprints.venue.routes.api import automation
from blueprints.venue.routes.api import reports

# Register all route functions on the blueprint
reservations.register_routes(api_bp)
payments.register_routes(api_bp)
holidays.register_routes(api_bp)
automation.register_routes(api_bp)
reports.register_routes(api_bp)
