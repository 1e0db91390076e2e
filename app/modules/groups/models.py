# Supabase tables: groups, group_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key)
- name: text (not null, unique per owner)
- description: text (nullable)
- owner_user_id: uuid (foreign key to user_profiles.id, not null)
- group_type: text (nullable) - "Organization" / "Friends" enable per-member peer visibility opt-out
- is_archived: boolean (default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

group_members:
- id: uuid (primary key)
- group_id: uuid (foreign key to groups.id, not null)
- user_id: uuid (foreign key to user_profiles.id, not null)
- role: text (not null, default: 'Member') - values: Owner, Member
- status: text (not null, default: 'Active') - values: Active, Left, Removed
- joined_at: timestamp (not null)
- left_at: timestamp (nullable)
- org_peer_visibility_access_disabled: boolean (default: false)
- unique constraint on (group_id, user_id); rows are revived on re-join, never deleted on removal
"""
