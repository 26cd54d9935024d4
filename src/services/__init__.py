"""Lead, payment method, payout and earnings services"""
