"""
Swagger/OpenAPI configuration for SafeTatt Backend API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "SafeTatt Backend API",
        "description": "Multi-tenant REST API for tattoo and piercing studios: agenda, sessions, cashback, clients, WhatsApp marketing and team management",
        "contact": {"email": "suporte@safetatt.com.br"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Login, invitations and permissions"},
        {"name": "Appointments", "description": "Agenda booking with conflict detection"},
        {"name": "Sessions", "description": "Tattoo and piercing session records"},
        {"name": "Loyalty", "description": "Cashback ledger and settings"},
        {"name": "Clients", "description": "Client directory and notes"},
        {"name": "Marketing", "description": "Audience segmentation and WhatsApp campaigns"},
        {"name": "WhatsApp", "description": "Per-studio WhatsApp gateway instance"},
        {"name": "Studios", "description": "Studio settings and branding"},
        {"name": "Team", "description": "Studio members and roles"},
        {"name": "Anamnesis", "description": "Health questionnaire per appointment"},
        {"name": "Dashboard", "description": "Studio home screen metrics"},
        {"name": "Admin", "description": "Platform administration"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
                "details": {"type": "string"},
            },
        },
        "ServiceError": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "example": False},
                "error": {
                    "type": "object",
                    "properties": {"message": {"type": "string"}},
                },
            },
        },
        "LoginPayload": {
            "type": "object",
            "required": ["email", "password"],
            "properties": {
                "email": {"type": "string", "format": "email", "example": "mestre@studio.com"},
                "password": {"type": "string", "example": "segredo123"},
            },
        },
        "Appointment": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "studio_id": {"type": "integer"},
                "client_id": {"type": "integer"},
                "client_name": {"type": "string"},
                "professional_id": {"type": "integer"},
                "professional_name": {"type": "string"},
                "professional_color": {"type": "string", "example": "#92FFAD"},
                "scheduled_date": {"type": "string", "format": "date"},
                "scheduled_time": {"type": "string", "example": "14:00"},
                "duration_minutes": {"type": "integer", "example": 60},
                "start_time": {"type": "string", "format": "date-time"},
                "end_time": {"type": "string", "format": "date-time"},
                "time": {"type": "string", "example": "14:00 - 15:00"},
                "status": {"type": "string", "example": "Confirmado"},
                "status_code": {"type": "string", "example": "confirmed"},
                "notes": {"type": "string"},
                "price": {"type": "number", "format": "float"},
            },
        },
        "AppointmentPayload": {
            "type": "object",
            "required": ["studio_id", "start_time"],
            "properties": {
                "studio_id": {"type": "integer", "example": 1},
                "client_id": {"type": "integer", "example": 12},
                "professional_id": {"type": "integer", "example": 3},
                "start_time": {"type": "string", "example": "2026-03-10T14:00:00"},
                "end_time": {"type": "string", "example": "2026-03-10T16:00:00"},
                "status": {"type": "string", "example": "Pendente"},
                "notes": {"type": "string"},
                "price": {"type": "number", "format": "float"},
            },
        },
        "Session": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "studio_id": {"type": "integer"},
                "client_id": {"type": "integer"},
                "client_name": {"type": "string"},
                "professional_id": {"type": "integer"},
                "artist_name": {"type": "string"},
                "appointment_id": {"type": "integer"},
                "status": {
                    "type": "string",
                    "enum": ["draft", "pending", "in_progress", "completed", "cancelled"],
                },
                "service_type": {"type": "string", "enum": ["tattoo", "piercing"]},
                "body_location": {"type": "string"},
                "price": {"type": "number", "format": "float"},
                "payment_status": {"type": "string", "enum": ["pending", "paid"]},
                "photos_url": {"type": "array", "items": {"type": "string"}},
                "consent_signature_url": {"type": "string"},
            },
        },
        "CheckoutPayload": {
            "type": "object",
            "required": ["price"],
            "properties": {
                "price": {"type": "number", "format": "float", "example": 500.0},
                "use_loyalty": {"type": "boolean", "example": True},
            },
        },
        "LoyaltyTransaction": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "client_id": {"type": "integer"},
                "type": {
                    "type": "string",
                    "enum": ["CREDIT", "DEBIT", "EXPIRED", "MANUAL_ADJUST"],
                },
                "direction": {"type": "string", "enum": ["EARN", "USE"]},
                "amount": {"type": "number", "format": "float"},
                "description": {"type": "string"},
                "expires_at": {"type": "string", "format": "date-time"},
                "created_at": {"type": "string", "format": "date-time"},
            },
        },
        "LoyaltyBalance": {
            "type": "object",
            "properties": {
                "balance": {"type": "number", "format": "float", "example": 50.0},
                "next_expiration": {"type": "string", "format": "date-time"},
            },
        },
        "Client": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "studio_id": {"type": "integer"},
                "name": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "phone": {"type": "string"},
                "cpf": {"type": "string"},
                "total_visits": {"type": "integer"},
                "total_spent": {"type": "number", "format": "float"},
                "last_visit": {"type": "string", "format": "date-time"},
            },
        },
        "Campaign": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "type": {"type": "string", "enum": ["birthday", "winback", "custom"]},
                "status": {"type": "string", "example": "draft"},
                "audience_count": {"type": "integer"},
                "message_template": {"type": "string", "example": "Oi {{name}}, bora tatuar?"},
                "sent_count": {"type": "integer"},
                "failed_count": {"type": "integer"},
            },
        },
        "Studio": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "slug": {"type": "string", "example": "estudio-tinta-fina"},
                "logo_url": {"type": "string"},
                "phone": {"type": "string"},
                "whatsapp_status": {"type": "string", "example": "CONNECTED"},
            },
        },
        "TeamMember": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "profile_id": {"type": "integer"},
                "full_name": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "role": {
                    "type": "string",
                    "enum": ["MASTER", "ARTIST", "PIERCER", "RECEPTIONIST"],
                },
                "color": {"type": "string", "example": "#92FFAD"},
            },
        },
    },
}
