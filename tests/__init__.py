"""
Test suite for ethlite.

Tests run against ``FakeChain`` (tests/fake_node.py), an in-memory node,
so nothing here touches a real network.
"""
