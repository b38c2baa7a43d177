"""Core domain package for instabridge.

Core contains room classification, media relay, profile sync and room
provisioning logic without any Matrix, HTTP or storage-specific code, keeping
the bridge logic portable and testable with fakes.
"""
