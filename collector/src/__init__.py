"""
Meter collector package for the A43-to-InfluxDB pipeline.

Polls ABB A43 energy meters over a shared Modbus RTU (RS-485) bus, decodes
their register blocks into engineering values, and posts one batch of
InfluxDB line protocol per sample interval.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
