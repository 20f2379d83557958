# ==============================================================================
# SERVICE REPOSITORY - catalog of clinic services
# ==============================================================================
# Encapsulates every access to services.json
# ==============================================================================

from clinic_pos.repositories.base import CollectionRepository


class ServiceRepository(CollectionRepository):
    """
    Repository of offerable services.

    Data format in services.json:
    [
        {
            "id": "9f1c...",
            "title": "CBC",
            "details": "Complete blood count",
            "price": 350.0,
            "available": true,
            "created_at": "2025-01-01T02:00:00+00:00",
            "updated_at": "2025-01-01T02:00:00+00:00"
        }
    ]
    """

    FILE_NAME = 'services.json'
    SERVER_TIMESTAMP_FIELDS = ('created_at', 'updated_at')

    def set_availability(self, service_id: str, available: bool) -> bool:
        """
        Changes the availability flag.

        Returns:
            True if the service exists
        """
        updated = self.update(service_id, {
            'available': bool(available),
            'updated_at': self.now_iso(),
        })
        return updated is not None
