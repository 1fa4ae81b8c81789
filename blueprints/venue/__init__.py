"""
Venue blueprint initialization.
Assembles the pavilion reservation API from its route modules:
- routes/api/reservations.py - Requests, transitions, notes, manager events
- routes/api/payments.py - Obligations, settlements, refunds, card payments
- routes/api/holidays.py - Holiday calendar and rule administration
- routes/api/automation.py - Daily automation runs
- routes/api/reports.py - Reconciliation and ledger export
"""

from flask import Blueprint

venue_bp = Blueprint('venue', __name__)

# API routes (all REST endpoints)
from blueprints.venue.routes.api import api_bp
venue_bp.register_blueprint(api_bp, url_prefix='/api')
