"""Platform collaborators consumed by the registry.

The registry never talks to the package manager, the telephony stack, or the
user manager directly. It goes through the small interfaces defined here:
- ComponentResolver: which components implement a connection service
- SubscriptionService: subscription ids and default voice/SMS subscriptions
- ScopeIdentity: stable serial numbers and profile relationships of scopes
- PlatformConfig: device-level defaults
"""
