from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from qr_schemes.schemas.scheme import FieldError


class SchemeError(Exception):
    """Базовая ошибка модуля схем"""


class DuplicateEntryError(SchemeError):
    """SKU + упаковка уже есть в черновике"""

    def __init__(self, sku_id: str, pack_size_id: str):
        self.sku_id = sku_id
        self.pack_size_id = pack_size_id
        super().__init__(f"Entry for SKU {sku_id} / pack {pack_size_id} already exists")


class RegionConflictError(SchemeError):
    """Регион вне фиксированного набора или уже занят другим override"""

    def __init__(self, codes: Sequence[str], reason: str):
        self.codes = list(codes)
        self.reason = reason
        super().__init__(f"{reason}: {', '.join(self.codes)}" if self.codes else reason)


class RegionNotCoveredError(SchemeError):
    def __init__(self, entry_index: int, region_code: str):
        self.entry_index = entry_index
        self.region_code = region_code
        super().__init__(f"Region {region_code} is not covered by entry {entry_index}")


class ValidationFailedError(SchemeError):
    """Черновик не прошёл проверку, содержит полный список ошибок"""

    def __init__(self, errors: List["FieldError"]):
        self.errors = list(errors)
        super().__init__(f"Scheme validation failed with {len(self.errors)} error(s)")


class NotFoundError(SchemeError):
    def __init__(self, entity: str, entity_id: Optional[object]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class RepositoryFailureError(SchemeError):
    """Ошибка хранилища/каталога, исходное исключение в __cause__"""
