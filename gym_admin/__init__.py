"""
Administrative back-office for the gym website.

This package contains:
- Shared configuration, logging and errors (`gym_admin.core`)
- Document store backends: Supabase and in-memory (`gym_admin.db`)
- Ordered-collection synchronization (`gym_admin.sync`)
- Telegram admin bot calling into the sync layer (`gym_admin.bot`)
"""
