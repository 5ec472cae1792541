# This file marks the routers package for API route modules.
# Route groups are split into health, stateless pricing rule calls, and stored price lists.
