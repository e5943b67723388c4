# Service modules are imported directly (services.documents, services.payments, ...)
# models import services.tax, so nothing here may import models
