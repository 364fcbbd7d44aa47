import time

import httpx
import pandas as pd
import streamlit as st

from dokan import cart as cart_rules
from dokan.checkout import CheckoutValidationError, place_orders
from dokan.client import ApiError, DokanClient
from dokan.config import API_URL
from dokan.currency import format_currency, format_currency_compact
from dokan.reviews import ImageStager, ReviewDraft, ReviewValidationError, fetch_review_queue, submit_batch, submit_review

ORDER_FLOW = {"pending": ["confirmed", "cancelled"], "confirmed": ["shipped", "cancelled"], "shipped": ["delivered"]}

# --- SESSION ---
if 'client' not in st.session_state: st.session_state['client'] = DokanClient(API_URL)
if 'user' not in st.session_state: st.session_state['user'] = None
if 'ratings' not in st.session_state: st.session_state['ratings'] = {}

client = st.session_state['client']

st.set_page_config(page_title="Dokan Marketplace", page_icon="🛍️", layout="wide")

st.markdown("""
<style>
    .price-tag { color: #e44d26; font-weight: bold; font-size: 1.1rem; }
    .old-price { text-decoration: line-through; color: #888; font-size: 0.9rem; margin-right: 5px; }
    .store-badge { background-color: #f0f2f6; padding: 2px 8px; border-radius: 5px; font-size: 0.8rem; }
</style>
""", unsafe_allow_html=True)


def call(fn, *args, **kwargs):
    """Run an API call and show its error instead of crashing the page."""
    try:
        return fn(*args, **kwargs)
    except ApiError as e:
        st.error(e.message)
    except httpx.HTTPError as e:
        st.error(f"Cannot reach the server: {e}")
    return None


def product_image(product):
    images = product.get('images') or []
    if images:
        image = images[0]
        return f"{API_URL}{image}" if image.startswith("/uploads/") else image
    return "https://placehold.co/600x400?text=Dokan"


def price_block(product):
    if product.get('discountPrice'):
        st.markdown(f"<span class='old-price'>{format_currency(product['price'])}</span>"
                    f"<span class='price-tag'>{format_currency(product['discountPrice'])}</span>",
                    unsafe_allow_html=True)
    else:
        st.markdown(f"<span class='price-tag'>{format_currency(product['price'])}</span>", unsafe_allow_html=True)


# ==========================================
# SIDEBAR: LOGIN / REGISTER
# ==========================================
with st.sidebar:
    st.title("Dokan 🛍️")
    if st.session_state['user'] is None:
        tab_login, tab_register, tab_admin = st.tabs(["🔐 Login", "📝 Register", "🛡️ Admin"])

        with tab_login:
            email = st.text_input("Email")
            pwd = st.text_input("Password", type="password")
            if st.button("Sign in"):
                user = call(client.login, email, pwd)
                if user:
                    st.session_state['user'] = user
                    st.rerun()

        with tab_register:
            with st.form("reg_form"):
                first = st.text_input("First name")
                last = st.text_input("Last name")
                username = st.text_input("Username")
                reg_email = st.text_input("Email address")
                reg_pwd = st.text_input("Password", type="password")
                confirm = st.text_input("Confirm password", type="password")
                role = st.radio("I want to", ["user", "vendor"], format_func=lambda r: "Shop" if r == "user" else "Sell")
                if st.form_submit_button("Create account"):
                    user = call(client.register, username=username, email=reg_email, password=reg_pwd,
                                confirmPassword=confirm, firstName=first, lastName=last, role=role)
                    if user:
                        st.session_state['user'] = user
                        st.rerun()

        with tab_admin:
            admin_name = st.text_input("Admin username")
            admin_pwd = st.text_input("Admin password", type="password")
            if st.button("Admin sign in"):
                user = call(client.admin_login, admin_name, admin_pwd)
                if user:
                    st.session_state['user'] = user
                    st.rerun()
    else:
        user = st.session_state['user']
        st.success(f"Hi, {user['firstName']}")
        st.markdown(f"Role: **{user['role'].upper()}**")
        if st.button("Logout"):
            call(client.logout)
            st.session_state['user'] = None
            st.rerun()

user = st.session_state['user']


# ==========================================
# SHOP (everyone)
# ==========================================
def render_shop():
    c1, c2, c3 = st.columns([3, 2, 2])
    search = c1.text_input("Search products")
    categories = call(client.categories) or []
    names = {"": "All categories", **{c['id']: c['name'] for c in categories}}
    category = c2.selectbox("Category", list(names), format_func=lambda k: names[k])
    city = c3.text_input("Deliver to (city, state or ZIP)")

    products = call(client.products, search=search or None, category=category or None, city=city or None) or []
    if not products:
        st.info("No products found.")
        return

    cols = st.columns(3)
    for i, p in enumerate(products):
        with cols[i % 3]:
            with st.container(border=True):
                st.image(product_image(p), use_container_width=True)
                st.subheader(p['name'])
                if p.get('vendor'):
                    st.markdown(f"<span class='store-badge'>{p['vendor']['storeName']}</span>", unsafe_allow_html=True)
                price_block(p)
                st.caption(f"⭐ {p['rating']} ({p['reviewCount']} reviews) · {p['stock']} in stock")
                if user and st.button("Add to cart ➕", key=f"add_{p['id']}"):
                    if call(client.add_to_cart, p['id']):
                        st.toast("Added to cart!", icon="✅")


# ==========================================
# CART + CHECKOUT
# ==========================================
def render_cart():
    items = call(client.cart) or []
    if not items:
        st.info("🛒 Your cart is empty.")
        return

    for item in items:
        product = item.get('product')
        if not product:
            continue
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([1, 3, 2, 1])
            c1.image(product_image(product), use_container_width=True)
            with c2:
                st.markdown(f"**{product['name']}**")
                price_block(product)
            with c3:
                col_minus, col_num, col_plus = st.columns([1, 1, 1])
                qty = item['quantity']
                if col_minus.button("➖", key=f"dec_{item['id']}", disabled=not cart_rules.can_decrement(qty)):
                    call(client.update_cart_item, item['id'], cart_rules.decremented(qty))
                    st.rerun()
                col_num.write(f"**{qty}**")
                if col_plus.button("➕", key=f"inc_{item['id']}"):
                    call(client.update_cart_item, item['id'], cart_rules.incremented(qty))
                    st.rerun()
            with c4:
                st.write(f"**{format_currency(cart_rules.line_total(item))}**")
                if st.button("🗑️", key=f"del_{item['id']}"):
                    call(client.remove_cart_item, item['id'])
                    st.rerun()

    st.divider()
    st.markdown(f"### Total: :red[{format_currency(cart_rules.cart_total(items))}]")

    with st.form("checkout"):
        st.subheader("Delivery address")
        a1, a2 = st.columns(2)
        address = {
            "firstName": a1.text_input("First name", value=user.get('firstName', '')),
            "lastName": a2.text_input("Last name", value=user.get('lastName', '')),
            "phone": a1.text_input("Phone", value=user.get('phone') or ''),
            "street": a2.text_input("Street"),
            "city": a1.text_input("City"),
            "state": a2.text_input("State"),
            "zipCode": a1.text_input("ZIP code"),
            "country": a2.text_input("Country", value="United States"),
        }
        payment = st.selectbox("Payment method", ["cod"], format_func=lambda m: "Cash on delivery")
        coupon = st.text_input("Coupon code (optional)")
        if st.form_submit_button("🚀 Place order", type="primary"):
            form = {"deliveryAddress": address, "paymentMethod": payment, "couponCode": coupon or None}
            try:
                with st.spinner("Placing your orders..."):
                    result = place_orders(client, items, form)
            except CheckoutValidationError as e:
                for err in e.errors:
                    st.error(err)
                return
            if result.all_succeeded:
                st.success(result.message)
                st.balloons()
                time.sleep(2)
                st.rerun()
            elif result.partially_succeeded:
                st.warning(result.message)
            else:
                st.error(result.message)


# ==========================================
# ORDERS + REVIEW PROMPT (buyers)
# ==========================================
def render_orders():
    orders = call(client.orders) or []
    if orders:
        df = pd.DataFrame(orders)[['id', 'status', 'total', 'paymentMethod', 'createdAt']]
        df['total'] = df['total'].map(format_currency)
        st.dataframe(df, use_container_width=True, hide_index=True)
    else:
        st.info("No orders yet.")

    queue = call(fetch_review_queue, client) or []
    if not queue:
        return
    st.divider()
    st.subheader("⭐ Rate your delivered products")
    pending = []
    for order, products in queue:
        st.caption(f"Order {order['id'][:8]} · {format_currency(order['total'])}")
        for p in products:
            pending.append(p)
            c1, c2 = st.columns([2, 3])
            stars = c1.select_slider(p['name'], options=[0, 1, 2, 3, 4, 5], key=f"stars_{order['id']}_{p['id']}")
            comment = c2.text_input("Comment", max_chars=500, key=f"comment_{order['id']}_{p['id']}")
            st.session_state['ratings'][p['id']] = (stars, comment)

    with st.expander("Add photos to one review"):
        target = st.selectbox("Product", pending, format_func=lambda p: p['name'])
        photos = st.file_uploader("Photos (max 5)", type=["jpg", "jpeg", "png", "gif", "webp"],
                                  accept_multiple_files=True)
        if st.button("Submit with photos") and target:
            stager = ImageStager(client)
            stager.add_many((f.name, f.getvalue(), f.type) for f in photos or [])
            for name, message in stager.failures:
                st.warning(f"{name}: {message}")
            stars, comment = st.session_state['ratings'].get(target['id'], (0, ""))
            draft = ReviewDraft(target['id'], target['vendorId'], rating=stars, comment=comment, images=stager.paths)
            try:
                if call(submit_review, client, draft):
                    st.success("Review submitted!")
            except ReviewValidationError as e:
                for path in list(stager.paths):
                    call(stager.remove, path)
                st.error(str(e))

    if st.button("Submit reviews", disabled=not any(r[0] for r in st.session_state['ratings'].values())):
        result = submit_batch(client, pending, st.session_state['ratings'])
        if result.success_count:
            st.success(result.message)
        elif result.error_count:
            st.error(result.message)
        st.session_state['ratings'] = {}


# ==========================================
# VENDOR DASHBOARD
# ==========================================
def render_vendor():
    vendor = call(client.my_vendor)
    if not vendor:
        st.stop()
    st.header(f"🏪 {vendor['storeName']}")
    m1, m2, m3 = st.columns(3)
    m1.metric("Total sales", format_currency_compact(vendor['totalSales']))
    m2.metric("Rating", vendor['rating'])
    m3.metric("Delivery fee", format_currency(vendor['deliveryFee']))

    tabs = st.tabs(["Add product", "My products", "Orders", "Coupons", "Settings"])

    with tabs[0]:
        with st.form("add_product"):
            name = st.text_input("Name")
            description = st.text_area("Description")
            price = st.number_input("Price", min_value=0.0, step=10.0)
            discount = st.number_input("Discount price (0 = none)", min_value=0.0, step=10.0)
            stock = st.number_input("Stock", min_value=0, step=1)
            sku = st.text_input("SKU")
            areas = st.text_input("Available in areas (comma separated)")
            image = st.file_uploader("Image", type=["jpg", "jpeg", "png", "gif", "webp"])
            if st.form_submit_button("Save"):
                images = []
                if image is not None:
                    uploaded = call(client.upload_product_image, image.name, image.getvalue(), image.type)
                    if uploaded:
                        images.append(uploaded['imagePath'])
                created = call(client.create_product, name=name, description=description, price=str(price),
                               discountPrice=str(discount) if discount else None, stock=int(stock), sku=sku,
                               images=images, availableInAreas=[a.strip() for a in areas.split(",") if a.strip()])
                if created:
                    st.success("Product added!")
                    time.sleep(1)
                    st.rerun()

    with tabs[1]:
        products = call(client.vendor_products) or []
        for p in products:
            c1, c2, c3, c4 = st.columns([3, 1, 1, 1])
            c1.write(f"**{p['name']}** ({p['sku']})")
            c2.write(format_currency(p['price']))
            c3.write(f"Stock: {p['stock']}")
            if c4.button("Delete", key=f"d_{p['id']}"):
                call(client.delete_product, p['id'])
                st.rerun()

    with tabs[2]:
        orders = call(client.orders) or []
        if not orders:
            st.info("No orders yet.")
        for o in orders:
            with st.container(border=True):
                c1, c2, c3 = st.columns([3, 1, 2])
                c1.write(f"**#{o['id'][:8]}** · {o['deliveryAddress'].get('city', '')}")
                c2.write(format_currency(o['total']))
                next_states = ORDER_FLOW.get(o['status'], [])
                if next_states:
                    new_status = c3.selectbox(o['status'], next_states, key=f"st_{o['id']}")
                    if c3.button("Update", key=f"up_{o['id']}"):
                        call(client.update_order_status, o['id'], new_status)
                        st.rerun()
                else:
                    c3.write(o['status'])

    with tabs[3]:
        with st.form("coupon"):
            code = st.text_input("Code")
            kind = st.selectbox("Type", ["percentage", "fixed"])
            value = st.number_input("Value", min_value=1.0)
            if st.form_submit_button("Create coupon"):
                if call(client.create_coupon, code=code, discountType=kind, discountValue=str(value)):
                    st.success("Coupon created")
        coupons = call(client.coupons) or []
        if coupons:
            st.dataframe(pd.DataFrame(coupons)[['code', 'discountType', 'discountValue', 'usedCount', 'isActive']],
                         hide_index=True)

    with tabs[4]:
        with st.form("delivery"):
            areas = st.text_input("Delivery areas", value=", ".join(vendor['deliveryAreas']))
            fee = st.number_input("Delivery fee", min_value=0.0, value=float(vendor['deliveryFee']))
            free_from = st.number_input("Free delivery from", min_value=0.0, value=float(vendor['freeDeliveryThreshold']))
            if st.form_submit_button("Save delivery settings"):
                if call(client.update_vendor_delivery, deliveryAreas=[a.strip() for a in areas.split(",") if a.strip()],
                        deliveryFee=fee, freeDeliveryThreshold=free_from):
                    st.success("Saved")


# ==========================================
# ADMIN DASHBOARD
# ==========================================
def render_admin():
    st.header("🛡️ Admin")
    stats = call(client.admin_stats)
    if stats:
        m = st.columns(5)
        m[0].metric("Customers", stats['totalUsers'])
        m[1].metric("Vendors", stats['totalVendors'])
        m[2].metric("Products", stats['totalProducts'])
        m[3].metric("Orders", stats['totalOrders'])
        m[4].metric("Revenue", format_currency_compact(stats['revenue']))

    tab_users, tab_vendors, tab_orders = st.tabs(["Users", "Vendors", "Orders"])
    with tab_users:
        for u in call(client.admin_users) or []:
            c1, c2, c3 = st.columns([3, 1, 1])
            c1.write(f"**{u['username']}** · {u['email']} · {u['role']}")
            c2.write("Active" if u['isActive'] else "Disabled")
            if u['id'] != user['id'] and c3.button("Toggle", key=f"tg_{u['id']}"):
                call(client.set_user_status, u['id'], not u['isActive'])
                st.rerun()
    with tab_vendors:
        vendors = call(client.admin_vendors) or []
        if vendors:
            df = pd.DataFrame(vendors)[['storeName', 'isApproved', 'rating', 'totalSales']]
            df['totalSales'] = df['totalSales'].map(format_currency)
            st.dataframe(df, use_container_width=True, hide_index=True)
    with tab_orders:
        orders = call(client.orders) or []
        if orders:
            df = pd.DataFrame(orders)
            summary = df.assign(total=df['total'].astype(float)).groupby('status')['total'].agg(['count', 'sum'])
            st.dataframe(summary)


# ==========================================
# MAIN APP
# ==========================================
stats = call(client.stats)
if stats:
    s1, s2, s3 = st.columns(3)
    s1.metric("Shoppers", stats['totalUsers'])
    s2.metric("Stores", stats['activeStores'])
    s3.metric("Products", stats['productsListed'])

if user is None:
    st.header("🛍️ Shop from local stores")
    render_shop()
elif user['role'] == 'admin':
    render_admin()
elif user['role'] == 'vendor':
    render_vendor()
else:
    tab_home, tab_cart, tab_orders = st.tabs(["🏠 Shop", "🛒 Cart", "📦 Orders"])
    with tab_home:
        render_shop()
    with tab_cart:
        render_cart()
    with tab_orders:
        render_orders()
