"""
ChannelHarvest Test Suite

Test Categories:
- unit/: Fast, isolated unit tests (HTTP served by httpx.MockTransport)
- fixtures/: Record factories and canned directory responses
"""
