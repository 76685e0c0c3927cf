"""Resource registry: public keys, entity capabilities and representations."""
