# This file marks the schemas package for API request and response models.
# Request bodies mirror the camelCase price list document; responses share one envelope.
