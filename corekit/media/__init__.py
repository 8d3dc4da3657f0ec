"""Hierarchical media library with filtering, pagination and soft deletion."""