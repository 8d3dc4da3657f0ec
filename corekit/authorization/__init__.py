"""Roles, permissions, resource permissions, seeding and request guards."""