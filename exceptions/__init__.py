"""Exception types shared across the tutor."""
