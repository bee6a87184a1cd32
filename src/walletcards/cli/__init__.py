"""Terminal front-end for WalletCards."""
