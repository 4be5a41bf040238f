"""
Features Module - Self-contained feature units.

Each feature is a modular unit with its own logic:
- auth: Bearer token validation against Supabase Auth
- quota: Free-tier gate and usage recorder
- insights: Claude insights, summaries and chat
- database: Organized data access repositories
"""
