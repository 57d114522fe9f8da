"""RunSync: phone / wrist activity state mirroring.

Subpackages:
    sync/        ActivityState, wire protocol, publisher (wrist) and receiver (phone)
    transport/   Channel abstraction plus loopback and HTTP implementations
    sensors/     Heart-rate sensor feeds (simulated, Apple Health export replay)
    routers/     FastAPI routes served by the phone process

Entry points:
    main    phone process (``uvicorn runsync.main:app``)
    wrist   wrist process (``python -m runsync.wrist``)
"""

__version__ = "0.1.0"
