"""The archival submission pipeline.

Sub-modules:
- ``canonical``     — URL → canonical item identity
- ``discovery``     — external content URLs inside an item container
- ``dom``           — observable document, host page events, bounded waits
- ``cooldown``      — per-URL last-success ledger
- ``queue``         — persistent archive queue and its drain algorithm
- ``submitter``     — save requests and the serialized queue drain
- ``monitor``       — navigation state machine, click rescans, periodic drain
- ``scheduling``    — permits, debouncer, periodic task
- ``context``       — enabled flag, last-seen pointer, permits
- ``notifications`` — fire-and-forget user notices
- ``app``           — wiring and user commands
- ``config``        — storage keys, status bounds, site selectors
"""
