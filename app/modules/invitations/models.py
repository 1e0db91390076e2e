# Supabase table: group_invitations
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

group_invitations:
- id: uuid (primary key)
- group_id: uuid (foreign key to groups.id, not null)
- inviter_user_id: uuid (foreign key to user_profiles.id, not null)
- invitee_user_id: uuid (foreign key to user_profiles.id, not null)
- token: text (unique, not null) - URL-safe secret used to accept or decline
- status: text (not null, default: 'Pending') - values: Pending, Accepted, Declined, Revoked, Expired
- expires_at: timestamp (nullable)
- created_at: timestamp (default: now())
- responded_at: timestamp (nullable)
- partial unique index on (group_id, invitee_user_id) where status = 'Pending'
"""
