# API Routers
from app.routers import auth, users, rooms, reservations, billing, services, housekeeping, feedback, reports

__all__ = ['auth', 'users', 'rooms', 'reservations', 'billing', 'services', 'housekeeping', 'feedback', 'reports']
