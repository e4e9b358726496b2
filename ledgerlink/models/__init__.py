from ledgerlink.models.local_store import LocalSetting

__all__ = ['LocalSetting']
