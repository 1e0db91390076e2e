# Supabase table: hidden_areas
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

hidden_areas:
- id: bigint (primary key)
- user_id: uuid (foreign key to user_profiles.id, not null)
- name: text (not null)
- description: text (nullable)
- area_wkt: text (not null) - WGS84 polygon as WKT, x = longitude, y = latitude
- created_at: timestamp (default: now())
"""
