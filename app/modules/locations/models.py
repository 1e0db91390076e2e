# Supabase table: locations
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

locations:
- id: bigint (identity primary key) - tie-break for "latest" when timestamps collide
- user_id: uuid (foreign key to user_profiles.id, not null)
- timestamp: timestamptz (not null) - when the server logged the record
- local_timestamp: timestamptz (not null) - capture instant reported by the device, normalised to UTC;
  every range filter and ordering uses this column
- time_zone_id: text (not null) - IANA zone of the device at capture time
- latitude: double precision (not null)
- longitude: double precision (not null)
- accuracy: double precision (nullable, meters)
- altitude: double precision (nullable, meters)
- speed: double precision (nullable)
- location_type: text (nullable)
- activity_type_id: integer (nullable)
- address, full_address, street_name, post_code, place, region, country: text (nullable)
- notes: text (nullable)

Indexes:
- (user_id, local_timestamp desc, id desc)  chronological ranges and latest lookups
- (user_id, longitude, latitude)            viewport queries
"""
