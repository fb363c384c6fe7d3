"""Reading Tracker - yardımcı modüller (doğrulayıcılar, CLI çıktı yardımcıları)."""
