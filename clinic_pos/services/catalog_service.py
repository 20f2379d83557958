# ==============================================================================
# CATALOG SERVICE
# ==============================================================================
# Business rules of the service catalog: validation of the service form,
# availability toggling, search and the admin-only delete.
# ==============================================================================

from typing import Any, Dict, List, Optional

from clinic_pos.models.entities import Service, StaffSession
from clinic_pos.repositories.base import StoreError
from clinic_pos.repositories.service_repository import ServiceRepository
from clinic_pos.services.auth_service import AuthService, CAP_DELETE_SERVICE
from clinic_pos.services.pricing import parse_amount, round2

AVAILABILITY_FILTERS = frozenset(['all', 'available', 'unavailable'])


class CatalogService:
    """
    Service for the catalog of clinic services.

    Responsibilities:
    - Create / edit services (title, details and price are required)
    - Toggle availability
    - Search and filter
    - Delete (admin only)
    """

    def __init__(self, service_repo: ServiceRepository, auth_service: AuthService):
        """
        Args:
            service_repo: Repository of services
            auth_service: Used for the capability check on delete
        """
        self.service_repo = service_repo
        self.auth_service = auth_service

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_service(self, service_id: str) -> Optional[Dict[str, Any]]:
        record = self.service_repo.get_by_id(service_id)
        if record is None:
            return None
        return Service.from_dict(record).to_dict()

    def list_services(self, query: str = '', availability: str = 'all') -> List[Dict[str, Any]]:
        """
        Lists services matching a search text and an availability filter.

        Args:
            query: Case-insensitive text searched in title and details
            availability: 'all', 'available' or 'unavailable'

        Returns:
            Matching services in insertion order
        """
        q = (query or '').strip().lower()
        if availability not in AVAILABILITY_FILTERS:
            availability = 'all'

        result = []
        for service in (Service.from_dict(d) for d in self.service_repo.get_all()):
            if q and q not in service.title.lower() and q not in service.details.lower():
                continue
            if availability == 'available' and not service.available:
                continue
            if availability == 'unavailable' and service.available:
                continue
            result.append(service.to_dict())
        return result

    def availability_counts(self) -> Dict[str, int]:
        services = self.service_repo.get_all()
        return {
            'total_services': len(services),
            'available_services': sum(1 for s in services if s.get('available')),
        }

    # =========================================================================
    # CREATE / EDIT
    # =========================================================================

    def validate_service_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validates the service form.

        Returns:
            {'ok': True, 'clean': {...}} or {'ok': False, 'error': str}
        """
        title = str(data.get('title') or '').strip()
        details = str(data.get('details') or '').strip()
        raw_price = data.get('price')

        if not title or not details or raw_price in (None, ''):
            return {'ok': False, 'error': 'Please fill all required fields'}

        price = parse_amount(raw_price)
        if price is None or price < 0:
            return {'ok': False, 'error': 'Price must be a non-negative number'}

        available = data.get('available', True)
        if isinstance(available, str):
            available = available.strip().lower() in ('1', 'true', 'yes', 'on')

        return {
            'ok': True,
            'clean': {
                'title': title,
                'details': details,
                'price': round2(price),
                'available': bool(available),
            },
        }

    def save_service(self, data: Dict[str, Any], service_id: str = None) -> Dict[str, Any]:
        """
        Creates a service, or updates it when service_id is given.

        Args:
            data: Form data (title, details, price, available)
            service_id: Id of the service to edit

        Returns:
            {'ok': True, 'service': {...}} or {'ok': False, 'error': str}
        """
        validation = self.validate_service_data(data)
        if not validation['ok']:
            return validation
        clean = validation['clean']

        try:
            if service_id:
                clean['updated_at'] = self.service_repo.now_iso()
                service = self.service_repo.update(service_id, clean)
                if service is None:
                    return {'ok': False, 'error': 'Service not found', 'not_found': True}
            else:
                service = self.service_repo.create(clean)
        except StoreError as e:
            print(f"[ERROR SERVICE SAVE] {e}")
            return {'ok': False, 'error': 'An error occurred while saving the service. Please try again.', 'store_error': True}

        return {'ok': True, 'service': service}

    def toggle_availability(self, service_id: str) -> Dict[str, Any]:
        """Flips the availability of a service."""
        service = self.get_service(service_id)
        if not service:
            return {'ok': False, 'error': 'Service not found', 'not_found': True}

        try:
            updated = self.service_repo.set_availability(service_id, not service.get('available'))
        except StoreError as e:
            print(f"[ERROR SERVICE TOGGLE] {e}")
            return {'ok': False, 'error': 'Failed to update service availability. Please try again.', 'store_error': True}
        if not updated:
            return {'ok': False, 'error': 'Service not found', 'not_found': True}

        return {'ok': True, 'service': self.get_service(service_id)}

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_service(self, service_id: str, staff: Optional[StaffSession]) -> Dict[str, Any]:
        """
        Deletes a service (admin only).

        Past transactions keep their own snapshot of the service, so they are
        not affected.
        """
        if not self.auth_service.can(staff, CAP_DELETE_SERVICE):
            return {'ok': False, 'error': 'Only administrators can delete services.', 'forbidden': True}

        try:
            removed = self.service_repo.delete(service_id)
        except StoreError as e:
            print(f"[ERROR SERVICE DELETE] {e}")
            return {'ok': False, 'error': 'Failed to delete service. Please try again.', 'store_error': True}
        if removed is None:
            return {'ok': False, 'error': 'Service not found', 'not_found': True}

        return {'ok': True, 'service_id': service_id}
