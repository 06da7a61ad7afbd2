"""Scene documents — front-block codec, thread links, vault access and flows.

Layout of a scene document:
    ---
    Link: https://discord.com/channels/GUILD/THREAD
    Characters:
      - Alice
    Participants: 2
    Replied?: false
    Created: 2026-01-31
    ---
    (free-form body, never touched by reconciliation)
"""
