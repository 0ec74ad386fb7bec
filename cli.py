import logging
import os

from scrapers.deep_link import search_query_from_uri
from scrapers.hikari_scraper import HikariScraper

logging.basicConfig(
    level=os.environ.get("HIKARI_LOG_LEVEL", "WARNING").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s',
)


def choose(items, label, describe):
    """Print a numbered list and return the picked item, or None to go back."""
    for i, item in enumerate(items, 1):
        print(f"{i}. {describe(item)}")

    while True:
        selection = input(f"\nEnter the number of the {label} (or 0 to go back): ").strip()
        if selection == '0':
            return None
        try:
            idx = int(selection) - 1
        except ValueError:
            print("Please enter a valid number.")
            continue
        if 0 <= idx < len(items):
            return items[idx]
        print(f"Invalid {label} number. Please try again.")


def save_streams(title, episode, videos):
    with open('urls.txt', 'a', encoding='utf-8') as url_file:
        url_file.write(f"\n==== Hikari: {title} - {episode['title']} ====\n")
        for video in videos:
            url_file.write(f"{video.quality}: {video.url}\n")
            for sub in video.subtitles:
                url_file.write(f"  Subtitle ({sub.label or 'Unknown'}): {sub.url}\n")


def show_episode_streams(scraper, anime, episode):
    print(f"\n🎥 Resolving streams for {episode['title']}...")
    videos = scraper.get_video_streams(episode['url'])
    if not videos:
        print("❌ No playable streams found for this episode.")
        return

    print(f"✅ Found {len(videos)} streams:")
    for i, video in enumerate(videos, 1):
        subs = f" [{len(video.subtitles)} subtitles]" if video.subtitles else ""
        print(f"{i}. {video.quality}{subs}")
        print(f"   {video.url}")
    save_streams(anime.get('title') or 'Unknown Anime', episode, videos)
    print("Stream URLs have been saved to urls.txt")


def browse_anime(scraper, anime):
    print(f"\n📝 Getting details for {anime['url']}...")
    details = scraper.get_anime_details(anime['url'])

    print(f"\n{'=' * 50}")
    print(f"Title: {details.get('title')}")
    print(f"Status: {details.get('status')}")
    if details.get('studio'):
        print(f"Studio: {details['studio']}")
    if details.get('genres'):
        print(f"Genres: {', '.join(details['genres'])}")
    if details.get('description'):
        print(f"\n{details['description']}")
    print(f"{'=' * 50}")

    print("\nFetching episodes...")
    episodes = scraper.get_episodes(details)
    if not episodes:
        print("No episodes found for this anime.")
        return

    print(f"\nFound {len(episodes)} episodes:")
    while True:
        episode = choose(episodes, "episode", lambda ep: ep['title'])
        if episode is None:
            return
        show_episode_streams(scraper, details, episode)


def pick_from_results(scraper, page_data):
    results = page_data.get('results', [])
    if not results:
        print("No results found.")
        return
    print(f"\nFound {len(results)} results" + (" (more pages available)" if page_data.get('has_next_page') else ""))
    anime = choose(results, "anime", lambda a: a.get('title') or a.get('url'))
    if anime is not None:
        browse_anime(scraper, anime)


def main_menu():
    """Display the main menu and handle user interaction"""
    scraper = HikariScraper()

    print("""
        ####################################
        ##   Hikari Stream Tool           ##
        ##   (Educational Purposes Only)  ##
        ####################################
        """)

    while True:
        print("\nWhat would you like to do?")
        print("1. Search anime")
        print("2. Popular anime")
        print("3. Latest updates")
        print("4. Open a shared Hikari link")
        print("5. Set quality preference")
        print("6. Exit")

        try:
            choice = input("\nEnter your choice (1-6): ").strip()

            if choice == '6':
                print("Exiting...")
                break

            elif choice == '1':
                query = input("\nEnter anime title to search: ").strip()
                if not query:
                    print("Please enter a valid search term.")
                    continue
                print(f"🔍 Searching for '{query}' on Hikari...")
                pick_from_results(scraper, scraper.search_anime(query))

            elif choice in ('2', '3'):
                page = input("Page number (default 1): ").strip() or "1"
                if not page.isdigit() or int(page) < 1:
                    print("Please enter a valid page number.")
                    continue
                if choice == '2':
                    pick_from_results(scraper, scraper.get_popular_anime(int(page)))
                else:
                    pick_from_results(scraper, scraper.get_latest_anime(int(page)))

            elif choice == '4':
                uri = input("\nPaste the link: ").strip()
                query = search_query_from_uri(uri)
                if query is None:
                    print("Could not parse that link.")
                    continue
                pick_from_results(scraper, scraper.search_anime(query))

            elif choice == '5':
                current = scraper._get_preference(scraper.PREF_QUALITY_KEY, scraper.PREF_QUALITY_DEFAULT)
                print(f"Current preference: {current}p")
                quality = input(f"Enter desired quality ({', '.join(scraper.QUALITY_ENTRIES)}): ")
                try:
                    stored = scraper.set_preferred_quality(quality)
                    print(f"Quality preference set to: {stored}p")
                except ValueError as e:
                    print(e)

            else:
                print("Invalid choice. Please enter a number between 1 and 6.")

        except (ConnectionError, ValueError) as e:
            print(f"❌ {e}")
            continue
        except KeyboardInterrupt:
            print("\nExiting...")
            break


if __name__ == "__main__":
    main_menu()
