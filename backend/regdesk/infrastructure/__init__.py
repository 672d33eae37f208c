"""Infrastructure — IO adapters: database sessions, logging, storage port, payment
provider and document/notification collaborators."""
