"""
Configuración centralizada de timeouts para la consulta de tasas de cambio.
Una consulta lenta nunca debe bloquear el cálculo local de totales.
"""

# Timeouts HTTP de la API de tasas (segundos)
RATES_CONNECT_TIMEOUT = 5          # Timeout de conexión HTTP
RATES_READ_TIMEOUT = 10            # Timeout de lectura HTTP
RATES_MAX_RETRIES = 3              # Máximo número de intentos
RATES_RETRY_MIN_WAIT = 0.5         # Espera mínima entre reintentos
RATES_RETRY_MAX_WAIT = 4           # Espera máxima entre reintentos


def is_retryable_status(status_code: int) -> bool:
    """Determina si un status HTTP es transitorio y puede reintentarse."""
    return status_code in (408, 429, 500, 502, 503, 504)
