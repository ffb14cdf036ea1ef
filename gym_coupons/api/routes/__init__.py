from gym_coupons.api.routes import coupons
