# Supabase table: user_profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id)
- username: text (unique, not null) - used in public timeline URLs and SSE topics
- display_name: text (nullable)
- is_timeline_public: boolean (default: false)
- public_timeline_time_threshold: text (nullable) - "now" or <number><h|d|w|m|y>, delay before
  a location appears on the public timeline
- location_time_threshold_minutes: integer (nullable) - Live window; falls back to
  settings.default_location_time_threshold_minutes
- time_zone: text (default: 'UTC') - IANA zone the timeline navigation uses as "today"
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
