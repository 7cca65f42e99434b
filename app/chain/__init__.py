from app.chain.listener import ChainListenerRegistry
from app.chain.reconciler import TransferReconciler

__all__ = ["ChainListenerRegistry", "TransferReconciler"]
