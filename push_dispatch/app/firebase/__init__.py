from .firebase import FcmSender, FirebaseClients, FirestoreTokenStore, load_service_account

__all__ = ["FcmSender", "FirebaseClients", "FirestoreTokenStore", "load_service_account"]
