ADMIN_PHONE = "9884713398"
ADMIN_SMS_NUMBER = "+919884713398"
CUSTOMER_SMS_NUMBER = "+919876543210"
