from songcraft.db.repositories.key_value import KeyValueRepository

__all__ = ["KeyValueRepository"]
