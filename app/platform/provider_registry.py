from app.core.config import settings
from app.platform.ports.object_storage import ObjectStoragePort
from app.platform.adapters.storage_local import LocalFilesystemStorage
from app.platform.adapters.storage_s3 import S3Storage
from app.platform.ports.transform import ImageTransformPort
from app.platform.adapters.transform_removebg import RemoveBgTransformer
from app.platform.ports.admission_store import AdmissionStorePort
from app.platform.adapters.admission_throttled import ThrottledAdmissionStore
from app.modules.demo.admission import AdmissionController

class ProviderRegistry:
    _object_storage: ObjectStoragePort | None = None
    _transformer: ImageTransformPort | None = None
    _admission_store: AdmissionStorePort | None = None
    _admission: AdmissionController | None = None

    @classmethod
    def object_storage(cls) -> ObjectStoragePort:
        if cls._object_storage is None:
            if settings.OBJECT_STORAGE_PROVIDER == "s3":
                cls._object_storage = S3Storage()
            else:
                cls._object_storage = LocalFilesystemStorage(settings.LOCAL_STORAGE_ROOT)
        return cls._object_storage

    @classmethod
    def transformer(cls) -> ImageTransformPort:
        if cls._transformer is None:
            cls._transformer = RemoveBgTransformer()
        return cls._transformer

    @classmethod
    def admission_store(cls) -> AdmissionStorePort:
        if cls._admission_store is None:
            window = dict(limit=settings.DEMO_RATE_LIMIT, window_seconds=settings.DEMO_RATE_WINDOW_SECONDS)
            if settings.ADMISSION_STORE_PROVIDER == "redis":
                cls._admission_store = ThrottledAdmissionStore.redis(**window)
            else:
                cls._admission_store = ThrottledAdmissionStore.memory(**window, max_keys=settings.ADMISSION_MEMORY_MAX_KEYS)
        return cls._admission_store

    @classmethod
    def admission(cls) -> AdmissionController:
        if cls._admission is None:
            cls._admission = AdmissionController(cls.admission_store())
        return cls._admission

registry = ProviderRegistry()
