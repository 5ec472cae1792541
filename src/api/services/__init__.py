# This file marks the services package for engine-facing API logic.
# Services wrap engine calls and price list persistence so routers only handle transport.
